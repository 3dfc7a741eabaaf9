"""Pipeline stages driven by the triggers: download spooling and transcoding."""
