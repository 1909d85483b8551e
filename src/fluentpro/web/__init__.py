"""FluentPro web layer - FastAPI app and shared dependencies."""
