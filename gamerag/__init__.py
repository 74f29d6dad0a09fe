"""
GameRAG - retrieval-augmented NPC dialogue.

Retrieves tiered lore (world, region, faction, persona, memory) for a persona
and routes each question to a local or cloud chat model.
"""

__version__ = "1.0.0"
