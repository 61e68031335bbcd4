"""Azure OpenAI text generation backend for prompt enrichment."""

from azure.identity import AzureCliCredential
from agent_framework.azure import AzureOpenAIResponsesClient


class AzureTextGenerationClient:
    """Same ``generate(text, instructions)`` contract as TextGenerationClient,
    served by an Azure OpenAI Responses agent.

    Endpoint and deployment are read by the client from the
    AZURE_OPENAI_* environment variables.
    """

    name = "azure-openai"

    def __init__(self):
        """Initialize with Azure OpenAI client."""
        self.client = AzureOpenAIResponsesClient(
            credential=AzureCliCredential(),
        )
        self._agents = {}

    def _get_agent(self, instructions: str):
        """Lazy init, one agent per instruction set."""
        if instructions not in self._agents:
            self._agents[instructions] = self.client.as_agent(
                name="GarmentPromptEnricher",
                instructions=instructions,
            )
        return self._agents[instructions]

    async def generate(self, text: str, instructions: str) -> str:
        agent = self._get_agent(instructions)

        response = await agent.run(text)

        # Extract text from response - iterate through messages and their contents
        result = ""
        for msg in response.messages:
            for content in msg.contents:
                if hasattr(content, 'text') and content.text:
                    result += content.text

        return result.strip()

    async def close(self):
        self._agents.clear()
