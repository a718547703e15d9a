"""CustomTkinter user interface: shell, sidebar and views."""
