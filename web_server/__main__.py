from web_server.main import main

main()
