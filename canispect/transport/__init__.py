"""Wire transport: endpoint resolution, HTTP agent and client construction."""
