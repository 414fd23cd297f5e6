# carerota - Care package rota scheduling and staffing rule validation
__version__ = "0.1.0"
