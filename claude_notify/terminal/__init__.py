"""Terminal plumbing: PTY subprocess, inbound bridge, and the session event loop."""
