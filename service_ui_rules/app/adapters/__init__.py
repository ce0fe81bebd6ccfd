"""
Adapters for external collaborators: the default effects store and the
flex features tab catalog.
"""
