"""filedrive - client-side transfer and activity layer for a hosted file drive"""

__version__ = "0.1.0"
