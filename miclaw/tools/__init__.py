"""Tools an agent can call: files, shell, processes, cron, memory, messages and sleep."""