"""Settings, logging and debug configuration shared by the shell and its tools."""
