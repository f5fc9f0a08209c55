"""Teaching context: course authoring drafts and their persistence."""
