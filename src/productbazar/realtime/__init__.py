"""Real-time push: Redis pub/sub rooms and the WebSocket endpoint."""
