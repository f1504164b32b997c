"""tariff-sync: scheduled electricity price retrieval from pluggable providers."""

__version__ = "0.1.0"
