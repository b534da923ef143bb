"""Chat with a single PDF or pasted text using retrieval-augmented generation."""
