from .blob import AwsCliBlobStore, BlobStore, CopyOptions, s3_url

__all__ = ["AwsCliBlobStore", "BlobStore", "CopyOptions", "s3_url"]
