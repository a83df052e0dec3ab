"""
Mafia Madness relationship engine.
Pure operations over a RecordStore, without web framework or database specifics.
"""
