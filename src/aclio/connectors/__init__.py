"""Front-ends that drive AppState (the interactive console)."""
