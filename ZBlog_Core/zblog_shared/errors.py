class ZBlogError(Exception):
    pass

# Input validation

class InvalidContentError(ZBlogError):
    def __init__(self , reason):
        self.reason = reason
        message = f"Invalid content: {reason}"
        super().__init__(message)

class InvalidCategoryError(ZBlogError):
    def __init__(self , category):
        self.category = category
        message = f"Invalid Category {category}"
        super().__init__(message)

class InvalidAccessLevelError(ZBlogError):
    def __init__(self , access_level):
        self.access_level = access_level
        message = f"Invalid Access Level {access_level}"
        super().__init__(message)

class InvalidPriceError(ZBlogError):
    def __init__(self , price):
        self.price = price
        message = f"Invalid Price {price}"
        super().__init__(message)

class MissingPostIdError(ZBlogError):
    def __init__(self , operation):
        self.operation = operation
        message = f"Post id required for {operation}"
        super().__init__(message)

class InvalidPostIdError(ZBlogError):
    def __init__(self , post_id):
        self.post_id = post_id
        message = f"Invalid Post id {post_id}"
        super().__init__(message)

class InvalidAddressError(ZBlogError):
    def __init__(self , address):
        self.address = address
        message = f"Invalid Address {address}"
        super().__init__(message)

# Authorization

class SigningDeclinedError(ZBlogError):
    def __init__(self , address):
        self.address = address
        message = f"Signer {address} declined the decryption request"
        super().__init__(message)

class SignerUnavailableError(ZBlogError):
    def __init__(self , message):
        message = f"Signer_error  = {message}"
        super().__init__(message)

class DecryptionRejectedError(ZBlogError):
    def __init__(self , reason):
        self.reason = reason
        message = f"Decryption rejected: {reason}"
        super().__init__(message)

# Ledger

class TransactionError(ZBlogError):
    def __init__(self , operation , cause):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed: {cause}"
        super().__init__(message)

class EncryptionError(ZBlogError):
    def __init__(self , message):
        message = f"Encryption_error  = {message}"
        super().__init__(message)

class ContractNotDeployedError(ZBlogError):
    def __init__(self , chain_id):
        self.chain_id = chain_id
        message = f"ZBlog is not deployed on chain {chain_id}"
        super().__init__(message)

# Storage

class ContentStoreUnavailableError(ZBlogError):
    def __init__(self , message):
        message = f"Content_store_error  = {message}"
        super().__init__(message)
