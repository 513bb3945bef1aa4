"""opun: drive AI coding assistants through a PTY and delegate tasks to them."""

__version__ = "0.1.0"
