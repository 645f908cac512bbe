"""amsf_filing.integrations: external service gateway modules.

All outbound HTTP calls go through a gateway in this package, never via bare
`requests` calls in services or blueprints.

Current gateways:
  validator_gateway.ValidatorGateway: remote XBRL rule engine
"""
