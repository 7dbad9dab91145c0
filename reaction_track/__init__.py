"""
Reaction Track

Core modules:
- track: roster -> ordered slot sequence
- roster: combatant ids and roster edits
- round_tracker: cursor stepping, round wraparound and the elite guarantee
- sequencer: command facade for collaborators (UI, CLI, persistence)
"""
