"""HTTP routers for the PDF chat service."""
