"""mch: personal context hub with semantic linking and a project/sprint hierarchy."""

__version__ = "0.3.0"
