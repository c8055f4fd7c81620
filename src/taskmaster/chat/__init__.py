"""Free-text command interpretation for the chat front end."""
