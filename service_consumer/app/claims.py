"""
Claim names and fixed values of the LTI 1.3 Advantage message format.
"""

LTI_VERSION = "1.3.0"

LTI_CLAIM = "https://purl.imsglobal.org/spec/lti/claim/"
DL_CLAIM = "https://purl.imsglobal.org/spec/lti-dl/claim/"
NRPS_CLAIM = "https://purl.imsglobal.org/spec/lti-nrps/claim/"

DEPLOYMENT_ID = LTI_CLAIM + "deployment_id"
VERSION = LTI_CLAIM + "version"
MESSAGE_TYPE = LTI_CLAIM + "message_type"
ROLES = LTI_CLAIM + "roles"
CONTEXT = LTI_CLAIM + "context"
CUSTOM = LTI_CLAIM + "custom"
TARGET_LINK_URI = LTI_CLAIM + "target_link_uri"
RESOURCE_LINK = LTI_CLAIM + "resource_link"

DEEP_LINKING_SETTINGS = DL_CLAIM + "deep_linking_settings"
CONTENT_ITEMS = DL_CLAIM + "content_items"
DL_MESSAGE = DL_CLAIM + "msg"
DL_LOG = DL_CLAIM + "log"
DL_ERROR_MESSAGE = DL_CLAIM + "errormsg"
DL_ERROR_LOG = DL_CLAIM + "errorlog"

NAMES_ROLE_SERVICE = NRPS_CLAIM + "namesroleservice"
NRPS_SERVICE_VERSIONS = ["2.0"]

# OAuth2 client credentials grant
CLIENT_CREDENTIALS = "client_credentials"
JWT_BEARER_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
