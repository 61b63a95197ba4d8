
__version__ = "0.1.0"
__banner__ = \
"""
# hexserve %s
# File browser and Riot API reverse proxy
""" % __version__
