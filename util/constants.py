class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    HEALTHZ = "/healthz"
    MODEL = V1 + "/model"


class ExternalURIs:
    CONSUL_CHECK_REGISTER = "/v1/agent/check/register"
    CONSUL_KV_CONFIG = "/v1/kv/config/{service}"
    CONSUL_HEALTH_CHECKS = "/v1/health/checks/{service}"
    VAULT_SECRET = "/v1/secret/{service}"


KV_NAMESPACE = "config/{service}/"
S3_PATH_SEPARATOR = "/"
DEFAULT_MODEL_REVISION = "main"
