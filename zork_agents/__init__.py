"""Two LLM agents, a player and a game master, improvising a text adventure."""
