"""NotebookLM Pipeline - turn a document or URL into a NotebookLM notebook with generated artifacts."""

__version__ = "0.1.0"
