"""DUT power switching, LED patterns, sensor polling, journal streaming and static file serving."""

__version__ = "0.1.0"