"""Course Q&A: retrieval-augmented answers to course questions."""
