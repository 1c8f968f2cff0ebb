"""
Scorpion core Python package.

Engine for Scorpion and Pyramid solitaire built on a generation-based card
history stored in SQLite. The Flask app and the text-mode driver only talk
to the Dealer; everything else is internal.
Modules:
- cards.py: Card value type, flag bits and card names
- db.py: CardDatabase, the SQLite tables behind the history
- history.py: GenerationStore (point-in-time reads, undo/redo deltas, commits)
- dealer.py: Dealer, the live card array and the with_undo transaction
- scorpion.py / pyramid.py: the rule engines
"""
