"""co2mon: live CO2/TVOC air-quality monitor."""

__version__ = "0.1.0"
