"""ssm-env-injector: inject AWS SSM parameters into Kubernetes containers at start time."""

__version__ = "1.0.0"
