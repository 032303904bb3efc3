from services.mock.brokermatic import MockBrokermaticClient, mock_brokermatic_client, mock_parsed_certificate

__all__ = [
    "MockBrokermaticClient",
    "mock_brokermatic_client",
    "mock_parsed_certificate",
]
