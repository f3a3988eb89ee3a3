from bmchat.cli import main

main()
