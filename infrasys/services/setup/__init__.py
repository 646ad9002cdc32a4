"""Setup (provisioning) services.

This package contains helpers that *provision* external infrastructure required by
a TUF repo (CloudFormation stacks for the S3 bucket and KMS signing keys).
"""
