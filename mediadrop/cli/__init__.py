"""
MediaDrop command line interface.
"""
