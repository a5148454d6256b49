"""State layer.

Events, the callback registry that delivers them, the retry/freshness
policies, and the store that decides which observation is current.
"""
