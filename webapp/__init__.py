"""Server-rendered site embedded in the Lambda function."""
