"""Game rules for tic-tac-toe, bingo and chat posts.

Every function takes a normalized session (or plain values) and returns a
verdict or a field-path update. Randomness comes in as an argument.
"""
