"""HTTP transport: FastAPI app and the outbound event stream."""
