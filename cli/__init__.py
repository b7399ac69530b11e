"""Terminal client for the relay: SSE stream consumer and chat loop."""
