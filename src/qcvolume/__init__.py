"""QingCloud block volume provisioner and FlexVolume driver."""

__version__ = "0.3.0"
