__version__ = "0.4.0"
__author__ = "gameinfo contributors"
