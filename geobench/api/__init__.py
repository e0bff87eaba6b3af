"""HTTP and WebSocket control plane."""
