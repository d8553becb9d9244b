"""CLI for defining, deploying and tearing down Amazon Bedrock AgentCore projects."""

__version__ = "0.1.0"
