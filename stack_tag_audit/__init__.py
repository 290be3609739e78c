"""stack-tag-audit: tagging compliance report for CloudFormation stack families."""

__version__ = "0.1.0"
