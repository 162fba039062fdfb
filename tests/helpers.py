"""Constants shared by the test modules."""

IAM_URL = "https://iam.test.cloud.ibm.com"
TOKEN_URL = f"{IAM_URL}/oidc/token"
CLIENT_ID = "bx"
CLIENT_SECRET = "bx-secret"
