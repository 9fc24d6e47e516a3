"""
LPO manager backend: team management, league seasons, tournaments and the
match scheduler that resolves fixtures as their kickoff time passes.
"""
