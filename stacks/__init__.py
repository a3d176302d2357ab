"""CDK stacks for the private S3 static website."""
