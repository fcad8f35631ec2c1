"""
CrUX performance audit application package.
"""
